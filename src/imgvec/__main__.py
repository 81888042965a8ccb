from imgvec.cli.main import run

run()
