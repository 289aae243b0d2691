from perobatch.main import cli

cli()
