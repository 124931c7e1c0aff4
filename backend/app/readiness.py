"""Readiness checks: config, packages, database, redis, optional payment gateway and ledger relay."""
import asyncio
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

logger = logging.getLogger(__name__)

# Result: (passed: bool, message: str)
CheckResult = tuple[bool, str]
ChecksDict = dict[str, CheckResult]

REQUIRED_CHECKS = {"config", "packages", "database"}


def check_config() -> CheckResult:
    """Load settings and read the keys every deployment needs."""
    try:
        from app.settings import get_settings
        s = get_settings()
        _ = s.app_name
        _ = s.database_url
        _ = s.redis_url
        if s.auction_min_lead_days < 0:
            return False, "auction_min_lead_days must not be negative"
        return True, "ok"
    except Exception as e:
        return False, str(e)


def check_packages() -> CheckResult:
    """Import critical modules: uvicorn, sqlalchemy, redis, httpx, jwt, app.main."""
    missing = []
    for name in ("uvicorn", "sqlalchemy", "redis", "httpx", "jwt", "bcrypt"):
        try:
            __import__(name)
        except ImportError:
            missing.append(name)
    try:
        import app.main  # noqa: F401
    except ImportError as e:
        missing.append(f"app.main ({e})")
    if missing:
        return False, f"missing: {', '.join(missing)}"
    return True, "ok"


async def _check_database_async(database_url: str) -> CheckResult:
    """Run a trivial query against the database."""
    try:
        engine = create_async_engine(database_url, pool_pre_ping=True)
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        await engine.dispose()
        return True, "ok"
    except Exception as e:
        return False, str(e)


def check_database() -> CheckResult:
    """Check database connectivity using settings.database_url."""
    try:
        from app.settings import get_settings
        url = get_settings().database_url
        return asyncio.run(_check_database_async(url))
    except Exception as e:
        return False, str(e)


def check_redis() -> CheckResult:
    """Check Redis connectivity using settings.redis_url."""
    try:
        from app.settings import get_settings
        import redis as redis_lib
        client = redis_lib.from_url(get_settings().redis_url)
        client.ping()
        client.close()
        return True, "ok"
    except Exception as e:
        return False, str(e)


def _check_http_health(base_url: Optional[str]) -> CheckResult:
    url = (base_url or "").strip().rstrip("/")
    if not url:
        return True, "skipped (not configured)"
    try:
        import httpx
        r = httpx.get(f"{url}/health", timeout=5.0)
        if r.status_code == 200:
            return True, "ok"
        return False, f"status {r.status_code}"
    except Exception as e:
        return False, str(e)


def check_payment() -> CheckResult:
    """GET {payment_api_url}/health."""
    from app.settings import get_settings
    return _check_http_health(get_settings().payment_api_url)


def check_ledger() -> CheckResult:
    """GET {ledger_api_url}/health when the ledger sink is enabled."""
    from app.settings import get_settings
    s = get_settings()
    if not s.ledger_enabled:
        return True, "skipped (disabled)"
    return _check_http_health(s.ledger_api_url)


def run_all_checks() -> ChecksDict:
    """Run all readiness checks (sync). Returns dict of check_name -> (passed, message)."""
    return {
        "config": check_config(),
        "packages": check_packages(),
        "database": check_database(),
        "redis": check_redis(),
        "payment": check_payment(),
        "ledger": check_ledger(),
    }


async def run_all_checks_async() -> ChecksDict:
    """Run all readiness checks (async). Use from async context (e.g. GET /ready) to avoid nested event loop."""
    from app.settings import get_settings
    db_result = await _check_database_async(get_settings().database_url)
    return {
        "config": check_config(),
        "packages": check_packages(),
        "database": db_result,
        "redis": check_redis(),
        "payment": check_payment(),
        "ledger": check_ledger(),
    }


def is_ready(checks: Optional[ChecksDict] = None) -> tuple[bool, dict[str, str]]:
    """
    True if all required checks pass. Sinks (redis, payment, ledger) are reported but optional.
    Returns (ready: bool, checks_summary: dict of name -> "ok" | "skipped ..." | error message).
    """
    if checks is None:
        checks = run_all_checks()
    summary = {name: msg for name, (_passed, msg) in checks.items()}
    all_required = all(checks[n][0] for n in REQUIRED_CHECKS if n in checks)
    return all_required, summary
