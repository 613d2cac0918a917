from salesboard.main import main

raise SystemExit(main())
