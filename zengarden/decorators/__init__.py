from .checks import is_cog_ready, is_not_locked, is_backup_configured
