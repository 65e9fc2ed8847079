import pytest

from explorer import descriptor
from explorer.grid import ArenaMap


def test_unexplored_map_is_only_padding():
    arena = ArenaMap(mark_zones=False)
    assert descriptor.encode_part1(arena) == "C" + "0" * 74 + "3"
    assert descriptor.encode_part2(arena) == ""


def test_fully_explored_empty_map():
    arena = ArenaMap()
    arena.set_all_explored()
    part1, part2 = descriptor.encode(arena)
    assert part1 == "F" * 76
    assert part2 == "0" * 76


def test_part2_covers_explored_cells_only():
    arena = ArenaMap(mark_zones=False)
    for c in range(4):
        arena.set_explored(0, c)
    arena.set_obstacle(0, 1)

    part1, part2 = descriptor.encode(arena)
    assert part1 == "FC" + "0" * 73 + "3"
    assert part2 == "40"


def _partly_explored():
    arena = ArenaMap()
    for r in range(3, 10):
        for c in range(2, 11):
            arena.set_explored(r, c)
    for rc in [(5, 5), (8, 3), (9, 10)]:
        arena.set_obstacle(*rc)
    return arena


def test_decode_restores_explored_and_obstacle_state():
    arena = _partly_explored()
    part1, part2 = descriptor.encode(arena)

    restored = descriptor.decode(part1, part2, ArenaMap(mark_zones=False))

    assert (restored.explored_array() == arena.explored_array()).all()
    assert (restored.obstacle_array() == arena.obstacle_array()).all()
    assert descriptor.encode(restored) == (part1, part2)
    assert restored.is_virtual_wall(5, 6)


def test_odd_sized_arena_pads_to_whole_nibbles():
    arena = ArenaMap(9, 7, start=(1, 1), goal=(7, 5))
    arena.set_explored(4, 3)
    arena.set_obstacle(4, 3)
    part1, part2 = descriptor.encode(arena)
    assert len(part2) % 2 == 0

    restored = descriptor.decode(part1, part2, ArenaMap(9, 7, mark_zones=False))
    assert restored.is_obstacle(4, 3)
    assert restored.explored_count() == arena.explored_count()


def test_decode_rejects_descriptor_for_other_arena_size():
    with pytest.raises(ValueError):
        descriptor.decode("FF", "", ArenaMap())


def test_decode_clears_zones_the_descriptor_left_unexplored():
    source = ArenaMap(mark_zones=False)
    source.set_explored(10, 7)
    source.set_obstacle(10, 7)
    part1, part2 = descriptor.encode(source)

    target = ArenaMap()
    target.set_explored(12, 4)
    assert target.is_explored(1, 1) and target.is_explored(18, 13)

    descriptor.decode(part1, part2, target)

    assert not target.is_explored(1, 1)
    assert not target.is_explored(18, 13)
    assert not target.is_explored(12, 4)
    assert target.explored_count() == 1
    assert target.is_obstacle(10, 7)
    assert descriptor.encode(target) == (part1, part2)
