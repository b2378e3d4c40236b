import hashlib
import logging
import random
import uuid
from typing import Dict, List, Optional, Tuple

# simulation config import
from syndicate.models import GAME_CONFIG, GameSettings
from syndicate.models import Borders, Region, Territory

logger = logging.getLogger(__name__)

# Optional deterministic seed for map generation
RAW_SIM_SEED = GAME_CONFIG.sim_seed

Grid = List[List[int]]  # grid[y][x] -> region index


def new_id() -> str:
    return str(uuid.uuid4())


# ---------- Seeds ----------

SEED_BITS = 48
SEED_MASK = (1 << SEED_BITS) - 1


def normalize_seed(value: Optional[object]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        try:
            return int(cleaned, 0) & SEED_MASK
        except ValueError:
            digest = hashlib.sha256(cleaned.encode("utf-8")).hexdigest()
            return int(digest, 16) & SEED_MASK
    if isinstance(value, (bytes, bytearray)):
        digest = hashlib.sha256(value).hexdigest()
        return int(digest, 16) & SEED_MASK
    try:
        return int(value) & SEED_MASK  # type: ignore[arg-type]
    except (TypeError, ValueError):
        digest = hashlib.sha256(str(value).encode("utf-8")).hexdigest()
        return int(digest, 16) & SEED_MASK


def make_rng(seed: Optional[object] = None) -> Tuple[random.Random, int]:
    """Return a seeded RNG and the effective seed (config seed when none given)."""
    effective_seed = normalize_seed(seed if seed is not None else RAW_SIM_SEED)
    if effective_seed is None:
        effective_seed = random.SystemRandom().randrange(1 << SEED_BITS)
    return random.Random(effective_seed), effective_seed


# ---------- Region partitioning ----------


def generate_region_grid(
    width: int,
    height: int,
    region_count: int,
    randomness: int,
    rng: random.Random,
) -> Grid:
    """
    Partition a width x height grid into region_count connected regions.

    Every region grows from a random seed cell. Each step picks a random region
    and takes one cell from its frontier; `randomness` (0..100) is the chance
    the cell is picked at random instead of first-in-line, so 0 yields compact
    diamond-like regions and 100 ragged ones.
    """
    total = width * height
    if region_count > total:
        raise ValueError(
            f"cannot fit {region_count} regions into a {width}x{height} grid"
        )

    grid: Grid = [[-1] * width for _ in range(height)]
    frontiers: List[List[Tuple[int, int]]] = [[] for _ in range(region_count)]

    def push_neighbours(region: int, x: int, y: int) -> None:
        for dx, dy in ((0, -1), (1, 0), (0, 1), (-1, 0)):
            nx, ny = x + dx, y + dy
            if 0 <= nx < width and 0 <= ny < height and grid[ny][nx] == -1:
                frontiers[region].append((nx, ny))

    assigned = 0
    for region in range(region_count):
        while True:
            x, y = rng.randrange(width), rng.randrange(height)
            if grid[y][x] == -1:
                break
        grid[y][x] = region
        assigned += 1
    for y in range(height):
        for x in range(width):
            if grid[y][x] != -1:
                push_neighbours(grid[y][x], x, y)

    while assigned < total:
        region = rng.randrange(region_count)
        frontier = frontiers[region]
        if not frontier:
            continue
        if rng.random() * 100 < randomness:
            index = rng.randrange(len(frontier))
        else:
            index = 0
        x, y = frontier.pop(index)
        if grid[y][x] != -1:
            continue
        grid[y][x] = region
        assigned += 1
        push_neighbours(region, x, y)

    return grid


def border_flags(grid: Grid, x: int, y: int) -> Borders:
    """A side is a border when the neighbour is off-map or in another region."""
    height = len(grid)
    width = len(grid[0]) if height else 0
    region = grid[y][x]

    def differs(nx: int, ny: int) -> bool:
        if not (0 <= nx < width and 0 <= ny < height):
            return True
        return grid[ny][nx] != region

    return Borders(
        top=differs(x, y - 1),
        right=differs(x + 1, y),
        bottom=differs(x, y + 1),
        left=differs(x - 1, y),
    )


# ---------- Map creation ----------


def create_regions(
    grid: Grid, settings: GameSettings, rng: random.Random
) -> Dict[str, Region]:
    count = settings.map.region_count
    regions: Dict[str, Region] = {}
    for index in range(count):
        hue = round(index * 360 / count)
        if index < len(settings.regions):
            name = settings.regions[index].name
            bonus = settings.regions[index].bonus
        else:
            name = f"Region {index + 1}"
            bonus = round(50 + rng.random() * 50)
        region_id = f"region-{index}"
        regions[region_id] = Region(
            id=region_id,
            name=name,
            territory_ids=[],
            color=f"hsl({hue}, 70%, 60%)",
            control_bonus=bonus,
            type=index,
        )

    for y, row in enumerate(grid):
        for x, region_index in enumerate(row):
            regions[f"region-{region_index}"].territory_ids.append(f"{x}-{y}")
    return regions


def create_territories(
    grid: Grid, settings: GameSettings, rng: random.Random
) -> Dict[str, Territory]:
    base = settings.map.territory_base_income
    step = settings.map.territory_income_step
    territories: Dict[str, Territory] = {}
    for y, row in enumerate(grid):
        for x, region_index in enumerate(row):
            territory_id = f"{x}-{y}"
            territories[territory_id] = Territory(
                id=territory_id,
                name=f"Territory {territory_id}",
                x=x,
                y=y,
                region_id=f"region-{region_index}",
                income=base + (rng.randint(0, 9) - 5) * step,
                borders=border_flags(grid, x, y),
            )
    return territories


def build_map(
    settings: GameSettings, rng: random.Random
) -> Tuple[Dict[str, Territory], Dict[str, Region]]:
    grid = generate_region_grid(
        settings.map.width,
        settings.map.height,
        settings.map.region_count,
        settings.map.border_randomness,
        rng,
    )
    regions = create_regions(grid, settings, rng)
    territories = create_territories(grid, settings, rng)
    logger.debug(
        "map generated: %dx%d, %d regions",
        settings.map.width,
        settings.map.height,
        len(regions),
    )
    return territories, regions
