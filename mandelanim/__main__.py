from mandelanim.cli import main

raise SystemExit(main())
