#!/usr/bin/python -u
# Copyright (c) 2010-2012 OpenStack, LLC.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or
# implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import argparse
import getpass
import logging
import signal
import socket
import warnings

from os import environ, _exit as os_exit
from sys import argv as sys_argv, exit, stderr

from ojsclient import RequestException
from ojsclient.auth import AUTH_URL
from ojsclient.client import DEFAULT_TIMEOUT, \
    logger_settings as client_logger_settings, parse_header_string
from ojsclient.command_helpers import print_container_stats, \
    print_object_stats, stat_container, stat_object
from ojsclient.config import CredentialStore
from ojsclient.exceptions import ClientException
from ojsclient.output import OutputManager
from ojsclient.service import OJSService
from ojsclient.utils import config_true_value, parse_timeout, \
    split_meta_items
from ojsclient.version import version_string as client_version

BASENAME = 'conoha-ojs'
commands = ('auth', 'deauth', 'list', 'stat', 'upload', 'download',
            'delete', 'post', 'version')

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARSE_FLAG = 2
EXIT_USAGE = 3


class UsageError(Exception):
    """Not enough arguments for a subcommand."""


def immediate_exit(signum, frame):
    stderr.write(" Aborted\n")
    os_exit(EXIT_ERROR)


st_auth_options = '''[--api-username <username>] [--api-password <password>]
                  [--tenant-name <tenant>] [--prompt]
'''

st_auth_help = '''
Authenticate to ConoHa Object Storage and store the credentials.

The token and the storage endpoint are cached in the config file
(~/.conoha-ojs unless --config says otherwise) and refreshed when they
expire.

Optional arguments:
  -u, --api-username <username>
                        API username. Defaults to env[OJS_USERNAME].
  -p, --api-password <password>
                        API password. Defaults to env[OJS_PASSWORD].
  -t, --tenant-name <tenant>
                        Tenant name. Defaults to env[OJS_TENANT_NAME], else
                        the API username.
  --prompt              Prompt the user for the password.
'''.strip('\n')


def st_auth(parser, args, output_manager):
    parser.add_argument(
        '-u', '--api-username', dest='username',
        default=environ.get('OJS_USERNAME'),
        help='API username. Defaults to env[OJS_USERNAME].')
    parser.add_argument(
        '-p', '--api-password', dest='password',
        default=environ.get('OJS_PASSWORD'),
        help='API password. Defaults to env[OJS_PASSWORD].')
    parser.add_argument(
        '-t', '--tenant-name', dest='tenant_name',
        default=environ.get('OJS_TENANT_NAME'),
        help='Tenant name. Defaults to the API username.')
    parser.add_argument(
        '--prompt', action='store_true', default=False,
        help='Prompt the user for the password.')

    options, args = parse_args(parser, args)
    if options['prompt']:
        options['password'] = prompt_for_password()
    if not (options['username'] and options['password']):
        raise UsageError('Not enough arguments.')
    tenant_name = options['tenant_name'] or options['username']

    with OJSService(options=options) as ojs:
        session = ojs.authenticate(options['username'], options['password'],
                                   tenant_name)
    if options['verbose'] > 1:
        output_manager.print_items([
            ('Endpoint URL', session.endpoint_url),
            ('Tenant ID', session.tenant_id),
            ('Token Expires', session.token_expires),
        ], offset=13)


st_deauth_options = '\n'

st_deauth_help = '''
Remove the config file holding the credentials and the cached token.
'''.strip('\n')


def st_deauth(parser, args, output_manager):
    options, args = parse_args(parser, args)
    store = CredentialStore(options['config_file'])
    if not store.remove():
        output_manager.warning('No credentials stored in %s', store.path)


st_list_options = '''[--recursive] [<container_or_object>]
'''

st_list_help = '''
Lists the containers of the account or the objects of a container.

Positional arguments:
  [<container_or_object>]
                        Name of the container to list; "/" (the default)
                        lists the containers. A trailing "*" is ignored.

Optional arguments:
  -r, --recursive       List every object below the path, descending into
                        containers.
'''.strip('\n')


def st_list(parser, args, output_manager):
    parser.add_argument(
        '-r', '--recursive', action='store_true', default=False,
        help='List every object below the path.')

    options, args = parse_args(parser, args)
    args = args[1:]
    if len(args) > 1:
        raise UsageError('Too many arguments.')
    path = args[0] if args else '/'

    with OJSService(options=options) as ojs:
        for name in ojs.list(path, recursive=options['recursive']):
            output_manager.print_msg(name)


st_stat_options = '''[--lh] <container_or_object>
'''

st_stat_help = '''
Displays information for the container or object.

Positional arguments:
  <container_or_object>
                        Name of the container or object to stat.

Optional arguments:
  --lh                  Report sizes in human readable format similar to
                        ls -lh.
'''.strip('\n')


def st_stat(parser, args, output_manager):
    parser.add_argument(
        '--lh', dest='human', action='store_true', default=False,
        help='Report sizes in human readable format similar to ls -lh.')

    options, args = parse_args(parser, args)
    args = args[1:]
    if len(args) != 1:
        raise UsageError('Not enough arguments.')

    with OJSService(options=options) as ojs:
        item = ojs.stat(args[0])
        if item.is_container:
            items = stat_container(ojs.session, item, options)
            print_container_stats(items, item, output_manager)
        else:
            items = stat_object(ojs.session, item, options)
            print_object_stats(items, item, output_manager)


st_upload_options = '''[--content-type <content-type>]
                    <container> <file_or_directory> [<file_or_directory>] [...]
'''

st_upload_help = '''
Uploads specified files and directories to the given container.

Positional arguments:
  <container>           Name of container to upload to.
  <file_or_directory>   Name of file or directory to upload. Specify multiple
                        times for multiple uploads.

Optional arguments:
  -c, --content-type <content-type>
                        Set the Content-Type of every uploaded object. If not
                        set, it is guessed from the file name and falls back
                        to "application/octet-stream".
'''.strip('\n')


def st_upload(parser, args, output_manager):
    parser.add_argument(
        '-c', '--content-type', dest='content_type', default=None,
        help='Content-Type of the uploaded objects.')

    options, args = parse_args(parser, args)
    args = args[1:]
    if len(args) < 2:
        raise UsageError('Not enough arguments.')
    container, paths = args[0], args[1:]

    with OJSService(options=options) as ojs:
        for r in ojs.upload(container, paths,
                            content_type=options['content_type']):
            if options['verbose']:
                output_manager.print_msg(r['path'])


st_download_options = '''<container_or_object> [<dest_path>]
'''

st_download_help = '''
Download objects from containers.

Positional arguments:
  <container_or_object>
                        Name of the object, or of the container to download
                        everything from. "container*" downloads only the
                        direct children of the container.
  [<dest_path>]         Directory to download into. Defaults to ".".
'''.strip('\n')


def st_download(parser, args, output_manager):
    options, args = parse_args(parser, args)
    args = args[1:]
    if not args:
        raise UsageError('Not enough arguments.')
    if len(args) > 2:
        raise UsageError('Too many arguments.')
    dest = args[1] if len(args) > 1 else '.'

    with OJSService(options=options) as ojs:
        for r in ojs.download(args[0], dest=dest):
            if options['verbose']:
                output_manager.print_msg(
                    '%s -> %s', r['path'], r['path_local'])


st_delete_options = '''<container_or_object>
'''

st_delete_help = '''
Delete a container or an object. A container is deleted together with
everything in it.

Positional arguments:
  <container_or_object>
                        Name of the container or object to delete.
                        "container*" deletes the contents of the container
                        but keeps the container itself.
'''.strip('\n')


def st_delete(parser, args, output_manager):
    options, args = parse_args(parser, args)
    args = args[1:]
    if len(args) != 1:
        raise UsageError('Not enough arguments.')

    with OJSService(options=options) as ojs:
        for r in ojs.delete(args[0]):
            if options['verbose']:
                output_manager.print_msg(r['path'])


st_post_options = '''[--meta <name:value>] [--read-acl <acl>]
                  [--write-acl <acl>] <container_or_object>
'''

st_post_help = '''
Updates meta information for the container or object.
If the container is not found, it will be created automatically.

Positional arguments:
  <container_or_object>
                        Name of the container or object to post to.

Optional arguments:
  -m, --meta <name:value>
                        Sets a meta data item. This option may be repeated.
                        Example: -m Color:Blue -m Size:Large
                        A blank value removes the item: -m Color:
  -r, --read-acl <acl>  Read ACL for containers.
                        Example: -r ".r:*,.rlistings"
  -w, --write-acl <acl> Write ACL for containers.
                        Example: -w "account1, account2"
'''.strip('\n')


def st_post(parser, args, output_manager):
    parser.add_argument(
        '-m', '--meta', action='append', dest='meta', default=[],
        help='Sets a meta data item. This option may be repeated.')
    parser.add_argument(
        '-r', '--read-acl', dest='read_acl', default=None,
        help='Read ACL for containers.')
    parser.add_argument(
        '-w', '--write-acl', dest='write_acl', default=None,
        help='Write ACL for containers.')

    options, args = parse_args(parser, args)
    args = args[1:]
    if len(args) != 1:
        raise UsageError('Not enough arguments.')
    try:
        meta = split_meta_items(options['meta'])
    except ValueError as err:
        output_manager.error(str(err))
        return EXIT_PARSE_FLAG

    with OJSService(options=options) as ojs:
        result = ojs.post(args[0], meta=meta, read_acl=options['read_acl'],
                          write_acl=options['write_acl'])
    if options['verbose'] > 1:
        output_manager.print_msg('%s: %s', result['action'], result['path'])


st_version_options = '\n'

st_version_help = '''
Print the version.
'''.strip('\n')


def st_version(parser, args, output_manager):
    parse_args(parser, args)
    output_manager.print_msg('Version: %s', client_version)


class HelpFormatter(argparse.HelpFormatter):
    def _format_action_invocation(self, action):
        if not action.option_strings:
            default = self._get_default_metavar_for_positional(action)
            metavar, = self._metavar_formatter(action, default)(1)
            return metavar

        else:
            parts = []

            # if the Optional doesn't take a value, format is:
            #    -s, --long
            if action.nargs == 0:
                parts.extend(action.option_strings)

            # if the Optional takes a value, format is:
            #    -s=ARGS, --long=ARGS
            else:
                default = self._get_default_metavar_for_optional(action)
                args_string = self._format_args(action, default)
                for option_string in action.option_strings:
                    parts.append('%s=%s' % (option_string, args_string))

            return ', '.join(parts)


def prompt_for_password():
    """
    Prompt the user for a password.

    :raise SystemExit: if a password cannot be entered without it being echoed
        to the terminal.
    :return: the entered password.
    """
    with warnings.catch_warnings():
        warnings.filterwarnings('error', category=getpass.GetPassWarning,
                                append=True)
        try:
            # temporarily set signal handling back to default to avoid user
            # Ctrl-c leaving terminal in weird state
            signal.signal(signal.SIGINT, signal.SIG_DFL)
            return getpass.getpass()
        except EOFError:
            return None
        except getpass.GetPassWarning:
            exit('Input stream incompatible with --prompt option')
        finally:
            signal.signal(signal.SIGINT, immediate_exit)


def print_command_usage(command, stream=None):
    _help = globals().get('st_%s_help' % command)
    _options = globals().get('st_%s_options' % command, "\n")
    print("Usage: %s %s %s\n%s" % (BASENAME, command, _options, _help),
          file=stream)


def parse_args(parser, args, enforce_requires=True):
    options, args = parser.parse_known_args(args)
    options = vars(options)
    if enforce_requires and (options.get('debug') or options.get('info')):
        logging.getLogger("ojsclient")
        if options.get('debug'):
            logging.basicConfig(level=logging.DEBUG)
            logging.getLogger('urllib3').setLevel(logging.WARNING)
            client_logger_settings['redact_sensitive_headers'] = False
        elif options.get('info'):
            logging.basicConfig(level=logging.INFO)

    if args and options.get('help'):
        if args[0] in commands:
            print_command_usage(args[0])
        else:
            print("no such command: %s" % args[0])
        exit(EXIT_USAGE)

    if enforce_requires:
        unknown = [arg for arg in args if arg.startswith('-') and arg != '-']
        if unknown:
            print('unrecognized arguments: %s' % ' '.join(unknown),
                  file=stderr)
            print_command_usage(args[0], stream=stderr)
            exit(EXIT_PARSE_FLAG)
    return options, args


def add_default_args(parser):
    parser.add_argument('-v', '--verbose', action='count', dest='verbose',
                        default=1, help='Print more info.')
    parser.add_argument('--debug', action='store_true', dest='debug',
                        default=False, help='Show the curl commands and '
                        'results of all http queries regardless of result '
                        'status.')
    parser.add_argument('--info', action='store_true', dest='info',
                        default=False, help='Show the curl commands and '
                        'results of all http queries which return an error.')
    parser.add_argument('-q', '--quiet', action='store_const', dest='verbose',
                        const=0, default=1, help='Suppress status output.')
    parser.add_argument('--auth-url', dest='auth_url',
                        default=environ.get('OJS_AUTH_URL') or AUTH_URL,
                        help='URL of the identity service. '
                        'Defaults to env[OJS_AUTH_URL] or %s.' % AUTH_URL)
    parser.add_argument('--timeout', dest='timeout', type=parse_timeout,
                        default=environ.get('OJS_TIMEOUT') or DEFAULT_TIMEOUT,
                        help='Timeout in seconds to wait for a response; '
                        's, m, h and d suffixes are accepted. '
                        'Defaults to env[OJS_TIMEOUT] or %d.'
                        % DEFAULT_TIMEOUT)
    parser.add_argument('--config', dest='config_file',
                        default=environ.get('OJS_CONFIG_FILE'),
                        help='File holding the credentials and the cached '
                        'token. Defaults to env[OJS_CONFIG_FILE] or '
                        '~/.conoha-ojs.')
    parser.add_argument('--insecure',
                        action="store_true", dest="insecure",
                        default=config_true_value(
                            environ.get('OJS_INSECURE')),
                        help='Allow ojsclient to access servers without '
                             'having to verify the SSL certificate. '
                             'Defaults to env[OJS_INSECURE] '
                             '(set to \'true\' to enable).')


def main(arguments=None):
    argv = sys_argv if arguments is None else arguments

    parser = argparse.ArgumentParser(
        add_help=False, formatter_class=HelpFormatter, usage='''
%(prog)s [--version] [--help] [--verbose] [--quiet] [--debug] [--info]
             [--auth-url <auth_url>] [--timeout <timeout>]
             [--config <config_file>] [--insecure]
             <subcommand> [--help] [<subcommand options>]

Command-line interface to ConoHa Object Storage.

Positional arguments:
  <subcommand>
    auth                 Authenticate a user and cache the token.
    deauth               Remove the stored credentials.
    list                 Lists the containers of the account or the objects
                         of a container.
    stat                 Displays information for a container or object.
    upload               Uploads files or directories to the given container.
    download             Download objects from containers.
    delete               Delete a container or objects within a container.
    post                 Updates meta information for a container or object;
                         creates containers if not present.
    version              Print the version.

Examples:
  %(prog)s auth -u user -p password

  %(prog)s upload photos ~/Pictures

  %(prog)s download photos/cat.jpg /tmp

  %(prog)s list --help
'''.strip('\n'))

    parser.add_argument('--version', action='version',
                        version='python-ojsclient %s' % client_version)
    parser.add_argument('-h', '--help', action='store_true')

    add_default_args(parser)

    options, args = parse_args(parser, argv[1:], enforce_requires=False)

    if options['help']:
        parser.print_help()
        exit(EXIT_USAGE)

    if not args or args[0] not in commands:
        parser.print_usage()
        if args:
            print('no such command: %s' % args[0], file=stderr)
            exit(EXIT_USAGE)
        exit(EXIT_OK)

    signal.signal(signal.SIGINT, immediate_exit)

    rc = None
    with OutputManager() as output:
        parser.usage = globals()['st_%s_help' % args[0]]
        if options['insecure']:
            import requests
            try:
                from requests.packages.urllib3.exceptions import \
                    InsecureRequestWarning
            except ImportError:
                pass
            else:
                requests.packages.urllib3.disable_warnings(
                    InsecureRequestWarning)
        try:
            rc = globals()['st_%s' % args[0]](parser, argv[1:], output)
        except UsageError as err:
            output.error(str(err))
            print_command_usage(args[0], stream=output.error_stream)
            rc = EXIT_PARSE_FLAG
        except ClientException as err:
            trans_id = err.transaction_id
            err.transaction_id = None  # clear it so we aren't overly noisy
            output.error(str(err))
            if trans_id:
                output.error("Failed Transaction ID: %s",
                             parse_header_string(trans_id))
        except (RequestException, socket.error) as err:
            # local file errors land here too
            output.error(str(err))

    if rc is None and output.get_error_count() > 0:
        rc = EXIT_ERROR
    if rc:
        exit(rc)


if __name__ == '__main__':
    main()
