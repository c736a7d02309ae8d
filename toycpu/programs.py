"""Example programs for the toy CPU."""

# Example 1: loop with a conditional exit
COUNTDOWN_PROGRAM = """
// Countdown: decrement R0 from 5 to 0, counting iterations in R3

    DATA R0 5
    DATA R1 255        // adding 255 subtracts 1
    DATA R2 1

MARK loop
    ADD R2 R3          // R3 = R3 + 1
    ADD R1 R0          // R0 = R0 - 1
    JIF Z done         // stop when R0 reaches zero
    JMP loop

MARK done
    END
"""

# Example 2: repeated addition, result written to RAM
MULTIPLY_PROGRAM = """
// Multiply 6 by 7 by repeated addition; the product ends in R2 and at 0xF0

    DATA R0 6          // addend
    DATA R1 7          // counter
    DATA R2 0          // product
    DATA R3 255

MARK loop
    ADD R0 R2          // product += 6
    ADD R3 R1          // counter -= 1
    JIF Z store
    JMP loop

MARK store
    DATA R3 0xF0
    ST R2 R3           // mem[0xF0] = product
    END
"""

# Example 3: Fibonacci sequence into memory
FIBONACCI_PROGRAM = """
// Fibonacci numbers written from 0x80 until the next one overflows 8 bits

    DATA R0 0          // fib(n-2)
    DATA R1 1          // fib(n-1)
    DATA R3 0x80       // store pointer

MARK loop
    ST R1 R3           // mem[pointer] = fib(n-1)
    DATA R2 1
    ADD R2 R3          // pointer += 1
    DATA R2 0
    ADD R1 R2          // R2 = fib(n-1)
    ADD R0 R1          // R1 = fib(n-2) + fib(n-1)
    JIF C done         // carry: the sum no longer fits in a byte
    DATA R0 0
    ADD R2 R0          // R0 = old fib(n-1)
    JMP loop

MARK done
    END
"""

PROGRAMS = {
    'countdown': ('Countdown Loop', COUNTDOWN_PROGRAM),
    'multiply': ('Multiply by Repeated Addition', MULTIPLY_PROGRAM),
    'fibonacci': ('Fibonacci Sequence', FIBONACCI_PROGRAM),
}
