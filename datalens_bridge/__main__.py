from .mcp_fastmcp import main

main()
