"""Install/uninstall orchestration: conflict detection, decisions and the operation manager."""
