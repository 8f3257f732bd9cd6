from snr.cli import main

raise SystemExit(main())
