from fannc.cli import run

run()
