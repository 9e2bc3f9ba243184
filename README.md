# arcticsniff

A passive Modbus RTU sniffer for Arctic heat pumps. It listens on the RS-485
line between the controller and the heat pump. It splits the byte stream into
frames and checks their CRCs. It pairs each request with its response and
decodes the registers into readable values such as "25 °C", "Hot Water" or
"UnitON | Compressor | WaterPump". Decoded transactions are served over a
small HTTP/WebSocket API. They can also be recorded in memory as JSON Lines.

## Installation

```
pip install arcticsniff
```

To run the test suite:

```
pip install "arcticsniff[test]"
pytest
```

## Command line

```
arcticsniff PORT [--baud 9600] [--host 0.0.0.0] [--http-port 8080]
                 [--capacity BYTES] [--dashboard FILE] [--ip ADDRESS]
                 [--version VERSION] [-v]
```

The command opens the serial device `PORT` as 8 data bits, even parity and
one stop bit. It runs the sniffer in a background thread and serves the web
API with aiohttp.

- `--baud`: the bus baud rate. The default is 9600.
- `--host`, `--http-port`: where the HTTP server listens. The defaults are
  0.0.0.0 and 8080.
- `--capacity`: the size of the recording buffer in bytes. The default is
  4 MiB. `0` turns recording off.
- `--dashboard`: an HTML file to serve, gzip-compressed, at `/`. Without it,
  `/` answers 404.
- `--ip`: the address that `/api/status` reports. It defaults to `--host`.
- `--version`: the version string that `/api/status` reports. The default is
  `0.3.0`.
- `-v`, `--verbose`: log at debug level. Every frame is logged.

The command exits with status 1 if it cannot read the dashboard file or
cannot open the serial port.

## Web API

| Method  | Path                   | What it does                                                   |
|---------|------------------------|----------------------------------------------------------------|
| GET     | `/`                    | the dashboard page, if one was given                           |
| GET     | `/api/status`          | version, IP, frame, CRC-error and transaction counts, recorder state, WebSocket client count |
| GET     | `/api/log`             | the last 100 transactions, oldest first                        |
| POST    | `/api/record/start`    | start in-memory recording; answers 409 if there is no buffer   |
| POST    | `/api/record/stop`     | stop recording and report the number of entries                |
| GET     | `/api/record/download` | the recording as `capture.jsonl` (`application/x-ndjson`)      |
| DELETE  | `/api/record`          | clear the recorded data                                        |
| OPTIONS | `/api/*`               | CORS preflight; answers 204                                    |
| GET     | `/ws`                  | WebSocket; every new transaction is pushed as JSON             |

The JSON responses and the download carry `Access-Control-Allow-Origin: *`.

Each transaction in `/api/log` and on `/ws` is sent in the form that
`arcticsniff.api_server.transaction_to_json` produces:

```
{"ts":...,"slave":1,"fc":3,"fc_name":"Read Holding","addr":2100,"count":1,"error":0,
 "regs":[{"addr":2100,"raw":45,"name":"Water Tank Temp","value":"45 °C"}]}
```

## Using it as a library

### Decoding registers (`arcticsniff.registers`)

```python
from arcticsniff.registers import format_bitmap, format_value, function_code_name, register_lookup

register_lookup(2110).name      # "Outdoor Ambient Temp"
format_value(2110, 0xFFFB)      # "-5 °C"
format_value(2001, 5)           # "Hot Water"
format_bitmap(2135, 0b100011)   # "UnitON | Compressor | WaterPump"
function_code_name(0x03)        # "Read Holding"
```

`register_lookup` returns a `RegisterInfo` with the fields `name`, `unit`,
`scale` and `is_signed`. For an unknown address it returns `None`.
`to_signed` reads a 16-bit value as two's complement. Raw values outside
0..0xFFFF raise `ValueError`.

### Sniffing (`arcticsniff.sniffer`)

```python
from arcticsniff.sniffer import ModbusSniffer, open_serial

def on_transaction(txn):
    print(txn.slave_addr, txn.fc, txn.reg_addr, txn.values[:txn.reg_count])

sniffer = ModbusSniffer(on_transaction)
sniffer.feed(data)          # raw bytes from the bus, in chunks of any size
sniffer.check_timeout()     # emit a request whose response is over 500 ms late
```

The sniffer handles these function codes:

- FC 3 and FC 4 (reads)
- FC 6 (single write)
- FC 16 (multiple write)
- exception responses, which have the high bit set

Each `Transaction` carries the following fields:

- `timestamp_ms`: wall-clock milliseconds. If the system clock reads before
  2020, the sniffer's own monotonic clock is used instead.
- `slave_addr`
- `fc`
- `reg_addr`
- `reg_count`
- `values`: up to 64 register values.
- `has_response`
- `error_code`

The sniffer keeps running counts in `frame_count`, `crc_errors` and
`transaction_count`.

`ModbusSniffer.run(stream)` reads a binary stream until it ends. A serial
port, which has a read timeout, is read indefinitely. `open_serial(port,
baudrate)` opens a port set up for 8-E-1. `crc16` computes the Modbus CRC.

### Recording (`arcticsniff.recorder`)

```python
from arcticsniff.recorder import Recorder

recorder = Recorder(capacity=4 * 1024 * 1024)
recorder.set_auto_stop_callback(lambda: print("buffer full"))
recorder.start()
recorder.add(txn)
jsonl = recorder.get_data()
```

Each line has this form:

```
{"t":1718000000000,"fc":3,"addr":2100,"count":3,"values":[45,0,38]}
```

Single writes record a single `value` instead of `count` and `values`. Only
FC 3, 6 and 16 are recorded; `format_jsonl` returns `""` for any other
function code.

Recording stops by itself once fewer than 32 bytes of the buffer are left,
and the auto-stop callback is then called. A `Recorder(None)` or
`Recorder(0)` has no buffer. On such a recorder, `has_memory_recording()` is
false and `start()` raises `RuntimeError`.

The recorder also offers `stop`, `clear`, `is_recording`, `entry_count`,
`buffer_used` and `buffer_limit`.

### Captive-portal DNS (`arcticsniff.dns`)

`start_dns_server(host, port, address)` is a coroutine. It starts a UDP
responder, `CaptiveDnsProtocol`, on the running event loop. The responder
answers every query with one A record, `192.168.4.1` by default, with a TTL
of 60 seconds. `build_response(query, address)` builds such an answer from a
raw query. It returns `None` for datagrams that are too short or malformed.

### Status screen (`arcticsniff.display`)

`StatusScreen` draws into a 128×128 RGB565 `FrameBuffer` using a built-in
5×7 font. It has three screens:

- `splash()`
- `refresh(...)`: IP address, blinking recording dot, entry count, memory bar
  and free space.
- `refresh_provisioning(ap_name)`: the Wi-Fi setup screen.

`FrameBuffer` offers the primitives `pixel`, `get`, `char`, `string`,
`rect`, `circle` and `clear`.

`ButtonDebouncer.poll(raw_pressed)` turns raw samples into one `True` per
stable press. `arcticsniff.app.ButtonController.on_press()` toggles
recording. Starting a recording this way clears the earlier data first.

## What it does not do

- It does not manage Wi-Fi. There is no station connection and no stored
  credentials. There is no setup portal beyond the DNS responder.
- It does not announce itself over mDNS, and it does not synchronise the
  clock.
- The `arcticsniff` command starts only the sniffer and the web API. It does
  not start the DNS responder or the status screen.
- `StatusScreen` only fills a frame buffer. Nothing sends the pixels to a
  physical panel.
- Nothing reads a physical button. `ButtonDebouncer` and `ButtonController`
  must be fed samples by the caller.
- Recordings are kept in memory only. They reach disk only through
  `/api/record/download` or `Recorder.get_data()`.