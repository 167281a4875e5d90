from modbuild.cli import main


main()
