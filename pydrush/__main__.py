from pydrush.cli import main

raise SystemExit(main())
