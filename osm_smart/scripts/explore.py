#!/usr/bin/env python3
"""Explore the surroundings of a point through a running OSM Smart server.

Runs the incremental grid or ring search against ``/api/tile``, prints live
progress and the relevant elements found, and optionally asks the server for
a Gemini summary of them.

Usage:
    python -m osm_smart.scripts.explore --lat 47.3769 --lng 8.5417
    python -m osm_smart.scripts.explore --lat 47.3769 --lng 8.5417 --mode ring --interests culture,history
    python -m osm_smart.scripts.explore --lat 47.3769 --lng 8.5417 --summary
"""

import argparse
import asyncio
import json
import math
import sys

import aiohttp

from osm_smart.config import get_config, setup_logging
from osm_smart.providers.utils import USER_AGENT
from osm_smart.src.allowed_tags import tags_for_interests
from osm_smart.src.markdown_table import split_summary
from osm_smart.src.search_controller import HttpTileClient, SearchController, SearchProgress
from osm_smart.utils.geometry import haversine_m, tile_area_sq_meters


def print_progress(progress: SearchProgress):
    if progress.grid_size:
        where = f"grid {progress.grid_size}x{progress.grid_size} ({progress.tiles_checked} tiles)"
    else:
        where = f"radius {progress.previous_radius}-{progress.radius}m"
    line = f"[SEARCH] {progress.state.value:<16} {where:<28} {progress.elements} elements"
    if progress.last_error:
        line += f"  ({progress.last_error})"
    print(line)


def searched_area(progress: SearchProgress, lat, zoom):
    """Ground area covered by the finished search, in km²."""
    if progress.grid_size:
        return tile_area_sq_meters(zoom, lat, progress.tiles_checked) / 1e6
    return math.pi * progress.radius ** 2 / 1e6


def describe(element, lat, lng):
    tags = element.get("tags") or {}
    name = tags.get("name") or f"{element.get('type')} {element.get('id')}"
    if element.get("lat") is None or element.get("lon") is None:
        return f"  - {name}"
    distance = haversine_m(lat, lng, element["lat"], element["lon"])
    return f"  - {name} ({distance:.0f}m away)"


async def fetch_summary(session, server_url, elements):
    async with session.post(f"{server_url}/api/summary", json={"elements": elements}) as resp:
        data = await resp.json(content_type=None)
        if resp.status != 200:
            return None, data.get("error", f"HTTP {resp.status}")
        return data, None


async def explore(args) -> int:
    config = get_config()
    server_url = (args.server or config.search_config.server_url).rstrip("/")
    tag_set = tags_for_interests(args.interests.split(",")) if args.interests else None

    async with aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}) as session:
        client = HttpTileClient(server_url, session=session, timeout=config.timeout_config.client)
        controller = SearchController(client, config=config, on_progress=None if args.json else print_progress)
        if args.mode == "ring":
            outcome = await controller.run_ring_search(args.lat, args.lng, tag_set)
        else:
            outcome = await controller.run_grid_search(args.lat, args.lng, tag_set)

        summary = None
        if args.summary and outcome.elements:
            summary, error = await fetch_summary(session, server_url, outcome.elements)
            if error:
                print(f"[GEMINI] {error}", file=sys.stderr)

    if args.json:
        print(json.dumps({
            "progress": outcome.progress.to_dict(),
            "elements": outcome.elements,
            "summary": summary,
        }, indent=2))
        return 0 if outcome.ok else 1

    area = searched_area(outcome.progress, args.lat, config.overpass_config.zoom)
    print(f"\nFound {len(outcome.elements)} relevant elements in {area:.2f} km²:")
    for element in outcome.elements:
        print(describe(element, args.lat, args.lng))

    if summary:
        narrative, rows = split_summary(summary.get("answer", ""))
        print(f"\n{narrative}")
        for row in rows:
            print(f"  * {row.label}")
        print(f"\n{len(summary.get('markers') or [])} map markers")

    return 0 if outcome.ok else 1


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Incremental OSM search around a point")
    parser.add_argument("--lat", type=float, required=True)
    parser.add_argument("--lng", type=float, required=True)
    parser.add_argument("--mode", choices=("grid", "ring"), default="grid")
    parser.add_argument("--interests", help="comma separated categories, e.g. culture,nature")
    parser.add_argument("--server", help="server base URL (default OSM_SMART_SERVER_URL)")
    parser.add_argument("--summary", action="store_true", help="ask Gemini for a summary of the results")
    parser.add_argument("--json", action="store_true", help="print machine readable output")
    args = parser.parse_args(argv)

    setup_logging()
    return asyncio.run(explore(args))


if __name__ == "__main__":
    sys.exit(main())
