"""HTTP blueprints: auth, captain dashboard, public guest flow and cron jobs."""
