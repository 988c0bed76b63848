"""Engine snapshot persistence with atomic writes to data/state.yaml."""

import logging
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from wager.clock import ManualClock
from wager.config import EngineConfig, Settings, get_settings
from wager.engine import WagerEngine
from wager.ledger import InMemoryLedger
from wager.models import EngineState

logger = logging.getLogger(__name__)


# ============================================================================
# Pydantic Models
# ============================================================================


class EngineSnapshot(BaseModel):
    """Everything needed to rebuild a local engine - matches data/state.yaml."""

    last_updated: datetime | None = None
    height: int = Field(default=0, ge=0)
    balances: dict[str, int] = Field(default_factory=dict)
    engine: EngineState = Field(default_factory=EngineState)


# ============================================================================
# Helper Functions
# ============================================================================


def get_data_dir(settings: Settings | None = None) -> Path:
    """Get the data directory path from settings."""
    settings = settings or get_settings()
    data_dir = settings.data_dir

    if not data_dir.exists():
        raise FileNotFoundError(
            f"Data directory not found: {data_dir}. "
            "Run 'python -m wager init' to create it."
        )

    return data_dir


def _get_state_path(settings: Settings | None = None) -> Path:
    """Get the path to state.yaml."""
    return get_data_dir(settings) / "state.yaml"


def create_default_snapshot(settings: Settings | None = None) -> EngineSnapshot:
    """Create a fresh snapshot seeded from configuration."""
    settings = settings or get_settings()

    return EngineSnapshot(
        last_updated=None,
        height=0,
        balances=dict(settings.ledger.initial_balances),
        engine=EngineState(fee_rate_bps=settings.engine.fee_rate_bps),
    )


# ============================================================================
# Public API
# ============================================================================


def load_snapshot(settings: Settings | None = None) -> EngineSnapshot:
    """Load engine snapshot from data/state.yaml."""
    state_path = _get_state_path(settings)

    # If state file doesn't exist, return default
    if not state_path.exists():
        logger.info(
            f"State file not found: {state_path}. Returning default empty state."
        )
        return create_default_snapshot(settings)

    try:
        with open(state_path, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)

        if not raw_data:
            logger.warning(f"Empty state file: {state_path}. Returning default state.")
            return create_default_snapshot(settings)

        snapshot = EngineSnapshot(**raw_data)
        logger.debug(f"Loaded state from {state_path}")
        return snapshot

    except yaml.YAMLError as e:
        logger.error(f"Corrupted YAML in state file: {e}")
        raise
    except Exception as e:
        logger.error(f"Failed to load state: {e}")
        raise


def save_snapshot(snapshot: EngineSnapshot, settings: Settings | None = None) -> None:
    """Atomically save engine snapshot to data/state.yaml.

    This uses a tempfile -> rename pattern to ensure atomic writes.
    If the process crashes mid-write, the original state.yaml remains intact.
    """
    state_path = _get_state_path(settings)

    snapshot.last_updated = datetime.now(timezone.utc)

    # JSON mode turns enums into strings and int dict keys into str keys
    snapshot_dict = snapshot.model_dump(mode="json")

    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=state_path.parent,
            delete=False,
            suffix=".yaml",
            encoding="utf-8",
        ) as temp_file:
            yaml.dump(
                snapshot_dict,
                temp_file,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
            temp_path = Path(temp_file.name)

        shutil.move(str(temp_path), str(state_path))
        logger.debug(f"Saved state to {state_path}")

    except Exception as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to save state: {e}")
        raise


def restore_engine(
    snapshot: EngineSnapshot, config: EngineConfig
) -> tuple[WagerEngine, InMemoryLedger, ManualClock]:
    """Rebuild a live engine, its ledger and its clock from a snapshot.

    A stored fee rate above the configured cap is lowered to the cap.
    """
    if snapshot.engine.fee_rate_bps > config.max_fee_rate_bps:
        logger.warning(
            f"Stored fee rate {snapshot.engine.fee_rate_bps} bps exceeds cap "
            f"{config.max_fee_rate_bps} bps, clamping"
        )
        snapshot.engine.fee_rate_bps = config.max_fee_rate_bps
    ledger = InMemoryLedger(snapshot.balances)
    clock = ManualClock(snapshot.height)
    engine = WagerEngine(ledger, clock, config=config, state=snapshot.engine)
    return engine, ledger, clock


def capture_snapshot(
    engine: WagerEngine, ledger: InMemoryLedger, clock: ManualClock
) -> EngineSnapshot:
    """Inverse of ``restore_engine``."""
    return EngineSnapshot(
        height=clock.height,
        balances=ledger.balances(),
        engine=engine.state.checkpoint(),
    )
