from prayerline.statusline import main


raise SystemExit(main())
