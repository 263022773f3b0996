"""Translate gateway entries into SFTP attributes and longnames."""

from stat import *
import time

DIRECTORY_MODE = S_IFDIR | 0o755
FILE_MODE = S_IFREG | 0o644

_filemode_table = (
    ((S_IFLNK,         "l"),
     (S_IFREG,         "-"),
     (S_IFBLK,         "b"),
     (S_IFDIR,         "d"),
     (S_IFCHR,         "c"),
     (S_IFIFO,         "p")),

    ((S_IRUSR,         "r"),),
    ((S_IWUSR,         "w"),),
    ((S_IXUSR | S_ISUID, "s"),
     (S_ISUID,         "S"),
     (S_IXUSR,         "x")),

    ((S_IRGRP,         "r"),),
    ((S_IWGRP,         "w"),),
    ((S_IXGRP | S_ISGID, "s"),
     (S_ISGID,         "S"),
     (S_IXGRP,         "x")),

    ((S_IROTH,         "r"),),
    ((S_IWOTH,         "w"),),
    ((S_IXOTH | S_ISVTX, "t"),
     (S_ISVTX,         "T"),
     (S_IXOTH,         "x"))
)

_paddings = (  # the len of each field of the longname string
    10,
    3,
    8,
    8,
    9,
    12
)


def filemode(mode):
    """Convert a file's mode to a string of the form '-rwxrwxrwx'."""
    perm = []
    for table in _filemode_table:
        for bit, char in table:
            if mode & bit == bit:
                perm.append(char)
                break
        else:
            perm.append("-")
    return ''.join(perm).encode()


def entry_mode(entry):
    return DIRECTORY_MODE if entry.is_dir else FILE_MODE


def entry_to_attrs(entry):
    """Return the attribute dictionary the server encodes for an entry.

    Backends carry no ownership, so uid and gid are always 0.
    """
    return {
        'size': entry.size,
        'uid': 0,
        'gid': 0,
        'perm': entry_mode(entry),
        'atime': entry.mtime,
        'mtime': entry.mtime,
    }


def entry_to_longname(entry, owner):
    """
    Some clients (FileZilla, I'm looking at you!)
    require 'longname' field of SSH2_FXP_NAME
    to be 'alike' to the output of ls -l.
    So, let's build it!

    The session user is shown as both owner and group.
    """

    longname = [
        filemode(entry_mode(entry)).decode(),
        '1',
        owner,
        owner,
        str(entry.size),
        time.strftime("%b %d %H:%M", time.gmtime(entry.mtime)),
    ]

    # add needed padding
    longname = [
        field + ' ' * (_paddings[i] - len(field))
        for i, field in enumerate(longname)
    ]
    longname.append(entry.name)

    return ' '.join(longname).encode()
