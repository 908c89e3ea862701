from discord_mcp.cli import main

raise SystemExit(main())
