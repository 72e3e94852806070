from iacrunner.main import main

main()
