import sys

from codeorchestrator.cli import main

sys.exit(main())
