from audioscribe.main import run

run()
