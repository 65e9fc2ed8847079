# how to run:
#   pip install -e .
#   uvicorn explorer.app:app --reload

# app.py
import asyncio
import datetime
import json
import os
import pathlib
from typing import Optional

from fastapi import FastAPI, HTTPException, UploadFile, File
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from explorer.simulate import build_trace, run_simulation, save_trace

# ---------- Config ----------
HERE = pathlib.Path(__file__).resolve().parent

# Override via env vars:
#   export ARENA_FILE=/abs/path/arena.json
ARENA_FILE = pathlib.Path(os.getenv("ARENA_FILE", str(HERE / "arena.json")))
TRACE_FILE = pathlib.Path(os.getenv("TRACE_FILE", str(HERE / "exploration_trace.json")))

# ---------- App setup ----------
app = FastAPI(title="Exploration Trace API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# In-memory cache + lock
cache_lock = asyncio.Lock()
cached_trace: Optional[dict] = None
cached_at: Optional[str] = None


# ---------- Helpers ----------
def _simulate(payload: dict) -> dict:
    trace = build_trace(run_simulation(payload))
    save_trace(trace, str(TRACE_FILE))
    return trace


def _load_json_file(path: pathlib.Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


async def simulate_and_cache(payload: dict) -> dict:
    global cached_trace, cached_at
    loop = asyncio.get_running_loop()
    trace = await loop.run_in_executor(None, _simulate, payload)
    async with cache_lock:
        cached_trace = trace
        cached_at = datetime.datetime.now(datetime.timezone.utc).isoformat()
    return trace


async def _run_or_fail(payload: dict) -> JSONResponse:
    try:
        trace = await simulate_and_cache(payload)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid arena: {e}")
    return JSONResponse(content=trace)


# ---------- Models ----------
class ArenaBody(BaseModel):
    # START_TASK-style payload; arena.py validates the contents
    data: dict


# ---------- Routes ----------
@app.get("/status")
async def status():
    async with cache_lock:
        return {
            "arena_file": str(ARENA_FILE),
            "arena_present": ARENA_FILE.exists(),
            "trace_present": TRACE_FILE.exists(),
            "cached": cached_trace is not None,
            "cached_at": cached_at,
        }


@app.get("/trace")
async def get_trace():
    global cached_trace, cached_at
    async with cache_lock:
        if cached_trace is not None:
            return JSONResponse(content=cached_trace)

    try:
        trace = await asyncio.get_running_loop().run_in_executor(None, _load_json_file, TRACE_FILE)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="No exploration trace yet. POST /run first.")
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=500, detail=f"{TRACE_FILE.name} is invalid JSON: {e}")

    async with cache_lock:
        cached_trace = trace
        cached_at = datetime.datetime.now(datetime.timezone.utc).isoformat()
    return JSONResponse(content=trace)


@app.get("/descriptor")
async def get_descriptor():
    async with cache_lock:
        if cached_trace is None:
            raise HTTPException(status_code=404, detail="No exploration trace yet. POST /run first.")
        return cached_trace["data"]["descriptor"]


@app.post("/run")
async def run_exploration(arena: Optional[ArenaBody] = None):
    """
    Runs a simulated exploration. Send {"data": {...}} or nothing to reuse
    ARENA_FILE. Returns the exploration trace.
    """
    if arena is not None:
        return await _run_or_fail({"data": arena.data})
    try:
        payload = await asyncio.get_running_loop().run_in_executor(None, _load_json_file, ARENA_FILE)
    except FileNotFoundError:
        raise HTTPException(status_code=400, detail="No arena provided and arena file not found.")
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"{ARENA_FILE.name} is invalid JSON: {e}")
    return await _run_or_fail(payload)


@app.post("/run/upload")
async def run_uploaded(arena_file: UploadFile = File(...)):
    if not arena_file.filename.lower().endswith(".json"):
        raise HTTPException(status_code=400, detail="Uploaded file must be .json")
    contents = await arena_file.read()
    try:
        payload = json.loads(contents.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="Uploaded file is not valid JSON.")
    return await _run_or_fail(payload)
