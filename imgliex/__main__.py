import sys

from imgliex.main import main


sys.exit(main())
