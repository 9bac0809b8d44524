async def setup(bot):
    # Imported here so the game core can be used without Red installed.
    from .zengarden import ZenGarden

    await bot.add_cog(ZenGarden(bot))
