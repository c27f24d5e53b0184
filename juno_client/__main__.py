from juno_client.launcher import main

raise SystemExit(main())
