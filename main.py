import sys


if __name__ == "__main__":
    if len(sys.argv) > 1:
        from imgbatch.cli import main as cli_main

        sys.exit(cli_main())
    from imgbatch.app import main

    main()
