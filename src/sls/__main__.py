from sls.cli.commands import run

run()
