from matchsync.main import main

raise SystemExit(main())
