# ABOUTME: Loguru setup for game and chain diagnostics with session-aware console lines and a tx audit trail.
# ABOUTME: Records are tagged with session/turn/stage context and pursuer secrets are masked before any sink sees them.

import sys
from pathlib import Path
from typing import Any

from loguru import logger

from proof_of_life.config.settings import Settings

# Bound keys that would reveal the hidden pursuer; masked on every record.
SECRET_KEYS = frozenset({"salt", "pursuer", "pursuer_x", "pursuer_y", "secret", "secret_key"})
REDACTED = "<redacted>"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[ctx]}</magenta> | "
    "<level>{message}</level>\n{exception}"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{name}:{function}:{line} | "
    "{extra[ctx]} | "
    "{message}\n{exception}"
)


def context_tag(extra: dict[str, Any]) -> str:
    """Short `s7 t3 evader dispatch` tag built from whatever context a record carries"""
    parts = []
    if "session" in extra:
        parts.append(f"s{extra['session']}")
    if "turn" in extra:
        parts.append(f"t{extra['turn']}")
    for key in ("stage", "operation"):
        if key in extra:
            parts.append(str(extra[key]))
    if "tx_hash" in extra:
        parts.append(str(extra["tx_hash"]))
    return " ".join(parts) or "-"


def patch_record(record: dict[str, Any]) -> None:
    """Mask secret fields and attach the rendered context tag"""
    extra = record["extra"]
    for key in SECRET_KEYS.intersection(extra):
        extra[key] = REDACTED
    extra["ctx"] = context_tag(extra)


def is_chain_record(record: dict[str, Any]) -> bool:
    return "operation" in record["extra"]


def setup_logging(
    log_level: str = "INFO",
    log_dir: str | Path | None = None,
    console_output: bool = True,
    file_output: bool = True,
    chain_audit: bool = True,
    rotation: str = "50 MB",
    retention: str = "14 days",
    compression: str = "zip"
) -> None:
    """
    Configure loguru for a game client.

    Sinks:
    - console: one line per record with a `s<session> t<turn> <stage>` tag
    - game log: every record, plain text, rotated daily or by size
    - chain audit: JSON lines holding only ledger operations (records bound
      with `operation`), for reconstructing what was sent and confirmed

    Secret pursuer fields are masked on every record regardless of sink.

    Usage:
        >>> setup_logging(log_level="DEBUG", log_dir="logs")
        >>> logger.bind(session=7, turn=3, stage="evader").info("Evader phase resolved")

    Args:
        log_level: Minimum log level ("DEBUG", "INFO", "WARNING", "ERROR")
        log_dir: Directory for log files (default: "logs")
        console_output: Enable console logging (default: True)
        file_output: Enable the game log file (default: True)
        chain_audit: Enable the chain audit file when file output is on (default: True)
        rotation: When to rotate log files
        retention: How long to keep old logs
        compression: Compression for rotated logs

    Raises:
        ValueError: If log_level is invalid
    """
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    log_level = log_level.upper()
    if log_level not in valid_levels:
        raise ValueError(
            f"Invalid log level: '{log_level}'. "
            f"Must be one of: {', '.join(sorted(valid_levels))}"
        )

    logger.remove()
    logger.configure(patcher=patch_record)

    if console_output:
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=log_level,
            colorize=True,
            backtrace=False,
            diagnose=False,
        )

    if file_output:
        log_dir = Path("logs") if log_dir is None else Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(log_dir / "proof_of_life_{time:YYYY-MM-DD}.log"),
            format=FILE_FORMAT,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            diagnose=False,
            enqueue=True,
        )
        if chain_audit:
            logger.add(
                str(log_dir / "chain_{time:YYYY-MM-DD}.jsonl"),
                level="DEBUG",
                filter=is_chain_record,
                serialize=True,
                rotation=rotation,
                retention=retention,
                compression=compression,
                enqueue=True,
            )

    logger.info(
        f"Logging configured: level={log_level}, console={console_output}, "
        f"file={file_output}, chain_audit={file_output and chain_audit}"
    )


def setup_logging_from_settings(settings: Settings, log_dir: str | Path | None = None) -> None:
    """Configure logging from a Settings instance (log_level, log_dir, chain_audit_log)"""
    setup_logging(
        log_level=settings.log_level,
        log_dir=log_dir or settings.log_dir,
        chain_audit=settings.chain_audit_log,
    )


def _emit(bound_logger: Any, level: str, message: str) -> None:
    level = level.upper()
    if level == "DEBUG":
        bound_logger.debug(message)
    elif level in ("WARNING", "WARN"):
        bound_logger.warning(message)
    elif level == "ERROR":
        bound_logger.error(message)
    else:
        bound_logger.info(message)


def log_turn_event(
    message: str,
    stage: str,
    session_id: int,
    turn: int,
    actor: str | None = None,
    level: str = "INFO",
    **extra_context: Any
) -> None:
    """
    Log a game event with the standard session context fields.

    Usage:
        >>> log_turn_event(
        ...     "Ping requested",
        ...     stage="dispatcher.action",
        ...     session_id=7,
        ...     turn=3,
        ...     actor="dispatcher",
        ...     beacon="N"
        ... )

    Args:
        message: Log message
        stage: Current session stage
        session_id: Session id
        turn: Turn number
        actor: Optional acting role
        level: Log level (default: "INFO")
        **extra_context: Additional context fields
    """
    context = {
        "stage": stage,
        "session": session_id,
        "turn": turn,
        **extra_context
    }

    if actor:
        context["actor"] = actor

    _emit(logger.bind(**context), level, message)


def log_phase_transition(
    from_stage: str,
    to_stage: str,
    session_id: int,
    turn: int,
) -> None:
    """
    Log a stage transition of the session state machine.

    Args:
        from_stage: Previous stage
        to_stage: New stage
        session_id: Session id
        turn: Turn number after the transition
    """
    logger.bind(
        from_stage=from_stage,
        to_stage=to_stage,
        session=session_id,
        turn=turn,
    ).info(f"Stage transition: {from_stage} -> {to_stage}")


def log_chain_event(
    operation: str,
    session_id: int,
    status: str,
    tx_hash: str | None = None,
    attempt: int | None = None,
    level: str = "INFO",
    **extra_context: Any
) -> None:
    """
    Log a ledger write or read with its pipeline context.

    Usage:
        >>> log_chain_event("request_ping", session_id=7, status="confirmed", tx_hash="ab12")

    Args:
        operation: Contract entrypoint name
        session_id: Session id
        status: Pipeline status ("submitted", "confirmed", "retry", "failed", ...)
        tx_hash: Optional transaction hash
        attempt: Optional attempt number
        level: Log level (default: "INFO")
        **extra_context: Additional context fields
    """
    context = {
        "operation": operation,
        "session": session_id,
        "status": status,
        **extra_context
    }

    if tx_hash:
        context["tx_hash"] = tx_hash

    if attempt is not None:
        context["attempt"] = attempt

    _emit(logger.bind(**context), level, f"Chain {operation}: {status}")
