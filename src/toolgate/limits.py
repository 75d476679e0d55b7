"""Upper bounds on caller-supplied tool parameters.

Every string and list a caller can pass to a tool is bounded, so a single
call cannot hand megabytes of arguments or thousands of list items to the
policy gate and the child process.
"""

from typing import Annotated

from pydantic import StringConstraints

STRING_MAX = 65_536  # free text: arguments, stdin, env values
ARRAY_MAX = 1_000  # items in any list or mapping parameter
PATH_MAX = 4_096  # file paths and program names
SHORT_STRING_MAX = 255  # refs, branch names, env variable names

BoundedStr = Annotated[str, StringConstraints(max_length=STRING_MAX)]
ShortStr = Annotated[str, StringConstraints(max_length=SHORT_STRING_MAX)]
