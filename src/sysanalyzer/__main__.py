from sysanalyzer.cli import main

raise SystemExit(main())
