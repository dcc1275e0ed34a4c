from relshim.shim import cli

cli(prog_name="relshim")
