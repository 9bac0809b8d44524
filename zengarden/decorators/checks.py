import discord
from redbot.core import commands


async def _refuse(ctx: commands.Context, title: str, description: str, **send_kwargs) -> bool:
    embed = discord.Embed(title=title, description=description, color=discord.Color.orange())
    await ctx.send(embed=embed, **send_kwargs)
    return False


def is_not_locked():
    """
    Blocks the command while the author has a pending action (a backup restore, for example).
    Pending actions are the informational locks kept by LockHelper.
    """

    async def predicate(ctx: commands.Context):
        lock_helper = getattr(ctx.cog, 'lock_helper', None)
        lock = lock_helper.get_user_lock(ctx.author.id) if lock_helper is not None else None
        if not lock:
            return True

        pending = lock.get('type', 'action').capitalize()
        reason = lock.get('message', 'Another action is still running.')
        return await _refuse(ctx, f"🔒 Garden Busy: {pending} in progress",
                             f"{ctx.author.mention}, please wait for it to finish.\n\n*{reason}*")

    return commands.check(predicate)


def is_cog_ready():
    """Blocks commands until the catalog and the saved game state have been loaded."""

    async def predicate(ctx: commands.Context):
        if getattr(ctx.cog, '_initialized', False):
            return True
        return await _refuse(ctx, "⏳ Garden Waking Up",
                             "The garden is still loading. Try again in a few seconds.", delete_after=10)

    return commands.check(predicate)


def is_backup_configured():
    """Fails when no remote backup service URL has been set."""

    async def predicate(ctx: commands.Context):
        if getattr(ctx.cog, 'backup_helper', None) is not None:
            return True
        return await _refuse(ctx, "☁️ No Backup Service",
                             "An admin can set one with `gardenadmin backupurl`.")

    return commands.check(predicate)
