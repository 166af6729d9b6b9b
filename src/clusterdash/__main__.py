from clusterdash.cli import main

main()
