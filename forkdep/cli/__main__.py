from forkdep.cli import main

main(prog_name="cargo-forkdep")
