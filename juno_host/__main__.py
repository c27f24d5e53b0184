from juno_host.launcher import main

raise SystemExit(main())
