# kw_platform: KeepWatching client cache platform.
