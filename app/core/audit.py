from datetime import datetime
from app.core.config import settings, LOGS_DIR


def write_audit_log(user_name: str, action: str, details: str = ""):
    if not settings.AUDIT_LOG_ENABLED:
        return
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    month_str = datetime.now().strftime("%Y_%m")
    log_file = LOGS_DIR / f"audit_{month_str}.log"
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    with open(log_file, "a", encoding="utf-8") as f:
        f.write(f"{ts} | {user_name} | {action} | {details}\n")
