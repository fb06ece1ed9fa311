import sys

from chat_to_html.cli import main

sys.exit(main())
