from wastebin.main import main

main()
