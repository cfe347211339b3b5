"""CLI subcommands for frida-mgr (``list``, ``resolve``, ``sync``)."""
