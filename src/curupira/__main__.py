from curupira import main

main()
