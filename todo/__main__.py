from todo.server import main

main()
