import sys

from qr_image_resolver.cli import main

sys.exit(main())
