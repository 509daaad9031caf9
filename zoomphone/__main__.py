from zoomphone.cli import main

main()
