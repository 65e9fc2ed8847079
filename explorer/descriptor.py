# descriptor.py
# Map descriptor strings exchanged with the tablet.
#
#   Part 1: "11" + explored bit per cell (row-major from row 0) + "11", as hex
#   Part 2: obstacle bit for each explored cell only, as hex, even length

PADDING = "11"


def bits_to_hex(bits):
    """Binary string -> upper-case hex, zero-padded on the right to a whole nibble."""
    if len(bits) % 4:
        bits += "0" * (4 - len(bits) % 4)
    return "".join(f"{int(bits[i:i + 4], 2):X}" for i in range(0, len(bits), 4))


def hex_to_bits(hex_str):
    return "".join(f"{int(ch, 16):04b}" for ch in hex_str.strip())


def encode_part1(arena):
    bits = [PADDING]
    for row in arena.grid:
        bits.extend("1" if cell.explored else "0" for cell in row)
    bits.append(PADDING)
    return bits_to_hex("".join(bits))


def encode_part2(arena):
    bits = "".join(
        "1" if cell.is_obstacle else "0"
        for row in arena.grid for cell in row if cell.explored
    )
    out = bits_to_hex(bits)
    if len(out) % 2:
        out += "0"
    return out


def encode(arena):
    return encode_part1(arena), encode_part2(arena)


def decode(part1, part2, arena):
    """
    Load explored and obstacle state from descriptor strings into arena.
    Every cell is overwritten, so zones marked at construction are cleared
    when Part 1 says they were never explored.
    """
    total = arena.rows * arena.cols
    bits1 = hex_to_bits(part1)
    if len(bits1) < total + 2 * len(PADDING) or not bits1.startswith(PADDING):
        raise ValueError("Part 1 descriptor does not match the arena size")
    explored = bits1[len(PADDING):len(PADDING) + total]
    bits2 = hex_to_bits(part2)
    if len(bits2) < explored.count("1"):
        raise ValueError("Part 2 descriptor is shorter than the explored cell count")

    k = 0
    for i, flag in enumerate(explored):
        r, c = divmod(i, arena.cols)
        if flag != "1":
            arena.set_obstacle(r, c, False)
            arena.get(r, c).explored = False
            continue
        arena.set_explored(r, c)
        arena.set_obstacle(r, c, bits2[k] == "1")
        k += 1
    return arena
