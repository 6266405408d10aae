from paperarch.cli import main

main()
