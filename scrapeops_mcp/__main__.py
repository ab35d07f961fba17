from scrapeops_mcp.server import main

main()
