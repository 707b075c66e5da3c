from obsidian_rest import run_server

run_server()
