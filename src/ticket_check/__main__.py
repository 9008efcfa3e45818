from ticket_check.app import main

raise SystemExit(main())
