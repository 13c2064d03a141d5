from ntgen.pipeline import main

main()
